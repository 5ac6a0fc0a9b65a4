from .template import FormTemplate, FormTemplateVersion, TemplateStatus, Recurrence
from .submission import Submission, SubmissionStatus
from .signature import Signature, SignatureMethod, SignatureAction
from .amendment import Amendment
from .sequence import SubmissionSequence
from .workflow_event import WorkflowEvent, EventStatus

__all__ = [
    'FormTemplate', 'FormTemplateVersion', 'TemplateStatus', 'Recurrence',
    'Submission', 'SubmissionStatus',
    'Signature', 'SignatureMethod', 'SignatureAction',
    'Amendment',
    'SubmissionSequence',
    'WorkflowEvent', 'EventStatus',
]
