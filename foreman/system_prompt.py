"""Default agent directive for foreman."""
from __future__ import annotations

from typing import List, Optional

from . import __version__


def build_directive(
    tool_names: List[str],
    custom_instructions: Optional[str] = None,
) -> str:
    """Build the static directive placed at the top of every prompt.

    Sections (static content first so prompts stay cache friendly):
    1. Header/role definition
    2. Tool usage rules
    3. Error handling
    4. Custom instructions
    """
    tools_list = ", ".join(sorted(tool_names)) or "none"
    sections = [
        _header_section(tools_list),
        _tool_usage_section(),
        _error_handling_section(),
    ]
    if custom_instructions:
        sections.append(_custom_instructions_section(custom_instructions))
    return "\n\n".join(sections)


def _header_section(tools_list: str) -> str:
    return f"""You are Foreman, an assistant embedded in a business management application.

<version_information>Version: {__version__}</version_information>

Available tools: {tools_list}"""


def _tool_usage_section() -> str:
    return """<tool_usage>
* Call a tool only when it is needed to answer; otherwise reply directly.
* Arguments must match the tool's input schema exactly.
* Independent tool calls can be requested together in a single response.
* Never invent identifiers, amounts or records; look them up with a tool or ask.
* Actions such as payments are irreversible: confirm intent before calling them.
* When a tool returns an action payload (for example navigation or a file download),
  reply with one short sentence for the user instead of repeating the payload.
</tool_usage>"""


def _error_handling_section() -> str:
    return """<error_handling>
When a tool result has "success": false:
1. Read the error message carefully
2. Fix the arguments and retry if the error names a missing or invalid field
3. If the tool keeps failing, explain to the user what happened
</error_handling>"""


def _custom_instructions_section(instructions: str) -> str:
    return f"""<custom_instructions>
{instructions}
</custom_instructions>"""
