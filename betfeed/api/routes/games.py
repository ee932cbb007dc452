"""Configured games for the front end."""
from typing import Dict

from fastapi import APIRouter, Depends, Request

from betfeed.core.config import GameRegistry, get_game_registry, settings
from betfeed.core.rate_limit import limiter

router = APIRouter(prefix="/api/games", tags=["games"])


@router.get("")
@limiter.limit("60/minute")
async def list_games(request: Request, registry: GameRegistry = Depends(get_game_registry)) -> Dict:
    """Enabled games, the current (default) game and request defaults."""
    current = registry.current_game()
    return {
        "success": True,
        "games": [g.to_public() for g in registry.enabled_games()],
        "currentGame": current.to_public() if current else None,
        "defaults": {
            **registry.defaults,
            "SESSION_GUID": settings.SESSION_GUID,
            "OPERATOR_GUID": settings.OPERATOR_GUID,
            "API_BASE": settings.API_BASE,
            "OFFSET_SECONDS": settings.OFFSET_SECONDS,
            "PRIMARY_MARKET_CLASS_IDS": settings.PRIMARY_MARKET_CLASS_IDS,
            "LANGUAGE_CODE": settings.LANGUAGE_CODE,
            "BETTING_LAYOUT_ENUM_VALUE": settings.BETTING_LAYOUT_ENUM_VALUE,
        },
    }
