# community_gate/models/access_log.py
from tortoise import fields, models


class AccessLog(models.Model):
    """
    Access attempt reported by a game server.
    - community: community name (entries are deleted together with the community)
    - player: player name as sent by the game server
    - action: free-form action string
    """
    id = fields.CharField(pk=True, max_length=36)
    community = fields.CharField(max_length=64, index=True)
    player = fields.CharField(max_length=64)
    action = fields.CharField(max_length=200)
    timestamp = fields.DatetimeField(index=True)

    class Meta:
        table = "access_logs"
