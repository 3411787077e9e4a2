import httpx
import logging
from src.core.config import settings

logger = logging.getLogger(__name__)

class MessengerService:
    """Service for pushing messages to users via the messenger transport service"""

    @staticmethod
    async def send_message(user_id: str, message: str) -> dict:
        """
        Send a plain text message to a messenger user (best effort)

        Args:
            user_id: Recipient id on the messenger platform
            message: Message text to send

        Returns:
            dict with 'success' key and optional 'error' message
        """
        # Development mode: skip the transport and just log
        if settings.SKIP_MESSENGER_IN_DEV:
            logger.info(f"📤 DEV MODE: Would send message to {user_id}")
            logger.info(f"Message: {message[:100]}...")
            return {"success": True, "dev_mode": True}

        try:
            async with httpx.AsyncClient(timeout=settings.MESSENGER_TIMEOUT) as client:
                response = await client.post(
                    f"{settings.MESSENGER_BOT_URL}/send-message",
                    json={
                        "user_id": user_id,
                        "message": message
                    }
                )

                if response.status_code == 200:
                    logger.info(f"Message sent successfully to {user_id}")
                    return {"success": True}
                else:
                    error_msg = f"Failed to send message: {response.status_code}"
                    logger.error(f"{error_msg} - {response.text}")
                    return {"success": False, "error": error_msg}

        except httpx.TimeoutException:
            error_msg = "Timeout sending message via messenger"
            logger.error(error_msg)
            return {"success": False, "error": error_msg}
        except Exception as e:
            error_msg = f"Error sending messenger message: {str(e)}"
            logger.error(error_msg, exc_info=True)
            return {"success": False, "error": error_msg}
