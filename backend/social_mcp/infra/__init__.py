"""Infrastructure: settings, scoring client, circuit breaker, live push."""
