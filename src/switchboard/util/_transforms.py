import re

from ..logger import logger


def transform_string_function_style(name: str) -> str:
    # Replace spaces with underscores
    name = name.replace(" ", "_")

    # Replace non-alphanumeric characters with underscores
    transformed_name = re.sub(r"[^a-zA-Z0-9_]", "_", name)

    if transformed_name != name:
        final_name = transformed_name.lower()
        logger.warning(
            f"Tool name {name!r} contains invalid characters for function calling and has been "
            f"transformed to {final_name!r}. Please use only letters, digits, and underscores "
            "to avoid potential naming conflicts."
        )

    return transformed_name.lower()


def validate_agent_name(name: str) -> None:
    """Validate an agent name.

    Agent names identify agents in handoff tool names, logs and loop detection, so they must be
    non-empty and free of characters that would be mangled in function names.

    Raises:
        ValueError: If the name has issues that should be fixed.
    """
    if not isinstance(name, str):
        raise ValueError(f"Agent name must be a string, got {type(name).__name__}")

    if not name.strip():
        raise ValueError("Agent name cannot be empty")

    if name != name.strip():
        raise ValueError(
            f"Agent name {name!r} has leading/trailing whitespace. "
            f"Consider using {name.strip()!r} instead."
        )

    problematic_chars = re.findall(r"[^a-zA-Z0-9\s_-]", name)
    if problematic_chars:
        unique_chars = sorted(set(problematic_chars))
        raise ValueError(
            f"Agent name {name!r} contains characters {unique_chars} that may cause issues "
            f"in handoffs or function calls. Consider using only letters, numbers, spaces, "
            f"hyphens, and underscores."
        )

    if len(name) > 100:
        raise ValueError(
            f"Agent name {name!r} is {len(name)} characters long. "
            f"Consider using a shorter, more concise name (under 100 characters)."
        )
