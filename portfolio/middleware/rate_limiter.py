"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in portfolio/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from portfolio.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
ANALYTICS_LIMIT = "200/minute"

WRITE_BLUEPRINTS = ("scenario", "dependency", "allocation")
ANALYTICS_BLUEPRINTS = ("risk",)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Scenario / dependency / allocation:  60/minute
        - Risk and matching analytics:        200/minute
        - Health check:                       exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in ANALYTICS_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(ANALYTICS_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info("Rate limiter configured: write=%s analytics=%s", WRITE_LIMIT, ANALYTICS_LIMIT)
