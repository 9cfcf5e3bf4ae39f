"""
Exceptions raised by the weather fetch pipeline.
"""


class WeatherFetchError(Exception):
    """Live weather data could not be obtained."""


class FetchTimeoutError(WeatherFetchError):
    """The live fetch missed its deadline."""


class RequestSupersededError(Exception):
    """A newer load for the same controller started before this one finished."""
