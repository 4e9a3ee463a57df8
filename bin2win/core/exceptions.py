"""Domain errors raised by the services layer and mapped to API responses."""


class Bin2WinError(Exception):
    """Base class for business rule violations"""
    code = 'error'
    status_code = 400
    default_message = 'Request could not be processed.'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)


class InvalidWasteInput(Bin2WinError, ValueError):
    code = 'invalid_waste_input'
    default_message = 'Invalid waste type or quantity.'


class InsufficientCredits(Bin2WinError):
    code = 'insufficient_credits'
    default_message = 'Not enough green credits.'


class BoothUnavailable(Bin2WinError):
    code = 'booth_unavailable'
    default_message = 'Booth cannot accept this submission.'


class RewardNotRedeemable(Bin2WinError):
    code = 'reward_not_redeemable'
    default_message = 'Reward cannot be redeemed.'


class InvalidStatusTransition(Bin2WinError):
    code = 'invalid_status_transition'
    status_code = 409

    def __init__(self, current, target, message=None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot change status from '{current}' to '{target}'.")


class OTPVerificationFailed(Bin2WinError):
    code = 'otp_invalid'
    default_message = 'OTP could not be verified.'
