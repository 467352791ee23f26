"""Prompt-to-image generation and publishing"""
