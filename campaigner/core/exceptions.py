# campaigner/core/exceptions.py
"""
Domain errors raised by the campaign services.
Routes translate them into HTTP responses.
"""


class CampaignError(Exception):
    """Base class for campaign errors"""

    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class CampaignNotFoundError(CampaignError):
    """Campaign not found"""

    status_code = 404


class ForbiddenError(CampaignError):
    """Only owners and admins can manage marketing campaigns"""

    status_code = 403


class AlreadySentError(CampaignError):
    """Campaign has already been sent or is currently sending"""

    status_code = 409


class NoRecipientsError(CampaignError):
    """No recipients match the campaign filters"""

    status_code = 400


class InvalidCampaignError(CampaignError):
    """Campaign data is invalid"""

    status_code = 400


class CampaignOrchestrationError(CampaignError):
    """Campaign run failed and was paused"""

    status_code = 500

    def __init__(self, message: str = None, campaign_id: str = None):
        super().__init__(message)
        self.campaign_id = campaign_id
