"""Live Timers: multi-user time tracking with pushed elapsed-time updates.

Layout, leaf first:

* ``core``: settings, logging, error taxonomy, password hashing and tokens
* ``models`` / ``crud``: the SQLAlchemy stores and the timer service
* ``services``: auth flows, duration maths and the broadcast loop
* ``routers`` / ``deps`` / ``middlewares``: the HTTP and WebSocket gateway
* ``main``: the application factory
"""

__version__ = "1.0.0"
