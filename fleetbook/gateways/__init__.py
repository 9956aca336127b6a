"""Interfaces to services the booking engine depends on."""

from fleetbook.gateways.base import ContractGateway, CustomerGateway, VehicleGateway

__all__ = ["ContractGateway", "CustomerGateway", "VehicleGateway"]
