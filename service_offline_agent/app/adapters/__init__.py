"""HTTP clients used by the offline agent."""

from .appointments_client import AppointmentsClient
from .network import NetworkFetcher

__all__ = ["AppointmentsClient", "NetworkFetcher"]
