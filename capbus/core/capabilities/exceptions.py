"""Exceptions for the capability bus"""


class CapabilityBusError(Exception):
    """Base exception for capability bus errors"""
    pass


class ContractViolation(CapabilityBusError):
    """Raw input rejected by a capability's input contract"""
    pass


class InvalidCapabilityError(CapabilityBusError):
    """Capability definition is malformed and cannot be registered"""
    pass
