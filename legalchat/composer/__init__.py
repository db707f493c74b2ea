from legalchat.composer.prompts import (
    build_generation_context,
    build_system_prompt,
    compose_prompt,
)

__all__ = ["compose_prompt", "build_generation_context", "build_system_prompt"]
