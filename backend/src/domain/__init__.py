"""Domain layer - ports, value types and errors shared by the indexing and search core"""
