"""Request guards: per-IP rate limiting for the relay and CORS setup."""
