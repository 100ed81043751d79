"""Allow ``python -m health_breaker``."""

from health_breaker.cli import main

main()
