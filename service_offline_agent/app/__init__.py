"""
Offline agent service package for the Mallikarjuna Hospital website.

The agent sits between the site's pages and the network, providing:
- Asset caching: a versioned static tier seeded at install time plus a
  dynamic tier grown from successful responses
- Fallbacks: cached root document for navigations, placeholder SVG for images
- Deferred submissions: appointment forms queued while offline and replayed
  on the ``appointment-sync`` signal
- Push notifications with explore/close actions

Structure:
- app.main: FastAPI host surface wiring events to the agent.
- app.agent: Builds the components from configuration.
- app.events: Dispatch table for install/activate/fetch/sync/push events.
- app.lifecycle: Install/activate state machine.
- app.interceptor: Cache-first request handling with the fallback ladder.
- app.caching: Tier manager and tier storage backends.
- app.queue: Durable SQLite submission queue.
- app.sync: Queue drain against the appointments endpoint.
- app.adapters: HTTP clients for assets and the appointments API.
- app.notifications: Push messages and notification clicks.
- app.submissions: Page-side submission with the offline queue fallback.
- app.host: In-process clients, notification tray and sync registry.
"""
