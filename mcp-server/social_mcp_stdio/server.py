"""Social MCP stdio server — relays tools to the Social MCP HTTP gateway."""

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from .client import SocialClient
from .config import get_client_id

mcp = FastMCP("social-mcp")


def _get_client() -> SocialClient:
    return SocialClient()


async def _call(name: str, **arguments) -> str:
    client = _get_client()
    try:
        if client.session_id is None:
            await client.initialize()
        text, is_error = await client.call_tool(name, arguments)
    finally:
        await client.close()
    if is_error:
        raise ToolError(text)
    return text


@mcp.tool()
async def social_register(display_name: str, bio: str = "", location: str = "") -> str:
    """Register (or update) your Social MCP profile. The API key is stored locally.

    Args:
        display_name: Your display name.
        bio: A brief bio about yourself. Only shown to matches you both accept.
        location: Where you are (optional).
    """
    return await _call(
        "social_register",
        display_name=display_name,
        bio=bio,
        location=location,
        client_id=get_client_id(),
    )


@mcp.tool()
async def social_login(display_name: str = "", profile_id: str = "") -> str:
    """Log in to an existing profile by display name or profile ID."""
    return await _call("social_login", display_name=display_name, profile_id=profile_id)


@mcp.tool()
async def social_whoami() -> str:
    """Show which profile this machine is logged in as."""
    return await _call("social_whoami")


@mcp.tool()
async def social_update_profile(display_name: str = "", bio: str = "", location: str = "") -> str:
    """Update your display name, bio or location."""
    return await _call("social_update_profile", display_name=display_name, bio=bio, location=location)


@mcp.tool()
async def social_set_intent(category: str, description: str, criteria: dict | None = None) -> str:
    """Say what kind of connection you are looking for.

    Args:
        category: professional, romance, friendship, expertise, sports, learning or other.
        description: What you are looking for, in your own words.
        criteria: Extra structured preferences (optional).
    """
    return await _call("social_set_intent", category=category, description=description, criteria=criteria)


@mcp.tool()
async def social_get_intents() -> str:
    """List your active intents."""
    return await _call("social_get_intents")


@mcp.tool()
async def social_deactivate_intent(intent_id: str) -> str:
    """Stop matching on one of your intents."""
    return await _call("social_deactivate_intent", intent_id=intent_id)


@mcp.tool()
async def social_get_matches() -> str:
    """List your matches and pending introductions."""
    return await _call("social_get_matches")


@mcp.tool()
async def social_respond_match(match_id: str, action: str) -> str:
    """Accept or reject a match.

    Args:
        match_id: The match ID.
        action: "accept" or "reject".
    """
    return await _call("social_respond_match", match_id=match_id, action=action)


@mcp.tool()
async def social_send_message(match_id: str, content: str) -> str:
    """Message a match. Both of you must have accepted."""
    return await _call("social_send_message", match_id=match_id, content=content)


@mcp.tool()
async def social_get_messages(match_id: str) -> str:
    """Read the conversation with a match."""
    return await _call("social_get_messages", match_id=match_id)


@mcp.tool()
async def social_get_notifications() -> str:
    """Fetch new notifications. Each one is returned only once."""
    return await _call("social_get_notifications")


@mcp.tool()
async def social_find_matches() -> str:
    """Run matching now for your intents."""
    return await _call("social_find_matches")


def main():
    mcp.run()


if __name__ == "__main__":
    main()
