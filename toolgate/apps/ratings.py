"""Like/dislike toggle for apps."""

from typing import Any

from toolgate.apps.models import App, RatingAction
from toolgate.apps.store import AppStore
from toolgate.gateway.errors import forbidden, invalid_params
from toolgate.observability.logging import get_logger
from toolgate.users.models import is_pro_tier

logger = get_logger(__name__)


class RatingService:
    """Applies a caller's rating and the library/block side effects it implies.

    A like saves the app to the caller's library and unhides it; a dislike
    hides it from the app store and drops it from the library. Repeating the
    current rating clears it. Only pro-tier ratings move the weighted counts.
    """

    def __init__(self, apps: AppStore) -> None:
        self._apps = apps

    async def rate(self, user_id: str, tier: str | None, app: App, rating: Any) -> dict[str, Any]:
        if rating not in ("like", "dislike"):
            raise invalid_params('rating must be "like" or "dislike"')
        if app.owner_id == user_id:
            raise forbidden(f"You cannot {rating} your own app")

        current = await self._apps.get_rating(app.id, user_id)
        if current == rating:
            updated = await self._apps.set_rating(app.id, user_id, None, is_pro_tier(tier))
            if rating == "like":
                await self._apps.remove_from_library(user_id, app.id)
            else:
                await self._apps.unblock(user_id, app.id)
            action = RatingAction.UNLIKED if rating == "like" else RatingAction.UNDISLIKED
            logger.info("app_rating_cleared", app_id=app.id, action=action.value)
            return self._result(app, updated, action)

        updated = await self._apps.set_rating(app.id, user_id, rating, is_pro_tier(tier))
        if rating == "like":
            await self._apps.save_to_library(user_id, app.id)
            await self._apps.unblock(user_id, app.id)
            action = RatingAction.LIKED
        else:
            await self._apps.block(user_id, app.id)
            await self._apps.remove_from_library(user_id, app.id)
            action = RatingAction.DISLIKED
        logger.info("app_rated", app_id=app.id, action=action.value)
        return {
            **self._result(app, updated, action),
            "saved_to_library": rating == "like",
            "blocked_from_appstore": rating == "dislike",
        }

    @staticmethod
    def _result(app: App, updated: App | None, action: RatingAction) -> dict[str, Any]:
        counts = updated or app
        return {
            "app_id": app.id,
            "app_name": app.name,
            "action": action.value,
            "likes": counts.likes,
            "dislikes": counts.dislikes,
        }
