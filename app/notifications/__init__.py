"""
Notifications app.

Only enqueuing is handled here: the Notification Enqueuer builds
normalized payloads and inserts them into the notification queue. A
separate dispatcher drains the queue and performs delivery.
"""
