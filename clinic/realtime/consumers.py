import json
from channels.generic.websocket import AsyncWebsocketConsumer

class UpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes appointment changes to connected admin dashboards."""
    GROUP = "updates"

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated and getattr(user, "role", None) == "admin"):
            await self.close(code=4003)
            return
        await self.channel_layer.group_add(self.GROUP, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.GROUP, self.channel_name)

    async def appointment_cancelled(self, event):
        # event: {"type": "appointment.cancelled", "appointmentId": int, "date": "...", "source": "...", "ts": "..."}
        await self.send(json.dumps(event))
