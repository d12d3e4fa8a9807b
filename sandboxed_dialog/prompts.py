"""
Core prompting for tool use.

Only the rules every tool-enabled dialog needs; application context is
supplied by the caller.
"""

from .call_parser import SENTINEL


def get_core_tool_prompt() -> str:
    """Rules explaining when and how to emit a tool call"""
    return f"""
**CRITICAL TOOL USAGE RULES:**

1. **ONLY use tools that are explicitly provided to you** - do not invent or reference tools that weren't listed
2. **NEVER use the {SENTINEL} tool syntax unless you intend to execute a specific action** - if you just want to respond normally, use plain text
3. **Tools are for ACTIONS ONLY** - use them only when the user requests something that requires execution (running code, system commands, etc.)
4. **For normal conversation, use plain text responses** - no tool syntax needed

**TOOL EXECUTION FORMAT (only when executing):**
> {SENTINEL}<uuid>/<tool_name>/<command>
```<language>
# Your code or command here
```

**EXECUTION RULES:**
- Put only one tool call in a response; only the first one is executed
- Generate a unique id for each tool call
- Use only the exact tool names and commands provided in your tool list
- After a tool runs you receive its result in the next message
- For direct answers (conversation), just write normal text without any tool syntax"""


def create_system_prompt(app_context: str | None, tool_descriptions: str | None = None) -> str:
    """Combine application context with the core rules and tool descriptions"""
    prompt = app_context or ""
    if tool_descriptions:
        if prompt:
            prompt += "\n\n"
        prompt += get_core_tool_prompt().strip()
        prompt += "\n\n**AVAILABLE TOOLS:**\n" + tool_descriptions
    return prompt
