"""
Notifications Core

Fans incoming events out to recipients over push, SMS and the dashboard feed.

- persistence: device tokens, verified destinations, relationship graph,
  dashboard feed and the processed-notification ledger
- adapters: one delivery adapter per channel, selected from config
- recipients / rendering: who gets what
- router: the Notification Router
- bridge: direct-call PublishEvent endpoint and its client
"""
