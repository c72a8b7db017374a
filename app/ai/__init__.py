"""
ClientForge
AI module.

Submodules:
    - gateway: LLM Gateway (provider chain, retry, usage logging)
    - generators: Prompt builders and response parsers per artefact
"""
