"""Request bodies for the scan API"""

from pydantic import BaseModel, Field


class PromptRequest(BaseModel):
    """Body of POST /generate-prompts-to-image"""
    prompt: str = Field("", max_length=2000)
