from .workflow import can_transition, available_actions
from .template_registry import TemplateRegistry
from .submission_service import SubmissionService, CreationContext

__all__ = ['can_transition', 'available_actions', 'TemplateRegistry', 'SubmissionService', 'CreationContext']
