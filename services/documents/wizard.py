"""
Generator Wizard

The select -> configure -> preview flow of the document generator as an
immutable state machine. Every transition returns a new wizard; the old
one is untouched, so a failed transition leaves the caller's state as it
was.

    select    --select_type-->  configure
    configure --configure-->    preview
    preview   --back-->         configure   (form values kept)
    configure --back-->         select      (type cleared)
    any       --reset-->        select
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .exceptions import WizardError
from .inputs import parse_request
from .types import DocumentRequest, DocumentType


class WizardStep(Enum):
    SELECT = 'select'
    CONFIGURE = 'configure'
    PREVIEW = 'preview'


@dataclass(frozen=True)
class GeneratorWizard:
    step: WizardStep = WizardStep.SELECT
    document_type: Optional[DocumentType] = None
    form: Mapping[str, Any] = field(default_factory=dict)
    request: Optional[DocumentRequest] = None

    def __post_init__(self):
        object.__setattr__(self, 'form', MappingProxyType(dict(self.form)))

    def _require(self, step: WizardStep, action: str) -> None:
        if self.step != step:
            raise WizardError(f"Cannot {action} from the {self.step.value} step")

    def select_type(self, document_type: DocumentType) -> 'GeneratorWizard':
        self._require(WizardStep.SELECT, 'select a document type')
        return GeneratorWizard(step=WizardStep.CONFIGURE, document_type=DocumentType(document_type))

    def configure(self, form: Mapping[str, Any]) -> 'GeneratorWizard':
        """
        Submit the configure form and move to preview.

        Raises:
            WizardError outside the configure step
            ValidationError if the form fails typed input validation
        """
        self._require(WizardStep.CONFIGURE, 'configure a document')
        document_request = parse_request(self.document_type, form)
        return replace(self, step=WizardStep.PREVIEW, form=form, request=document_request)

    def back(self) -> 'GeneratorWizard':
        if self.step == WizardStep.PREVIEW:
            return replace(self, step=WizardStep.CONFIGURE, request=None)
        if self.step == WizardStep.CONFIGURE:
            return GeneratorWizard()
        raise WizardError("Already at the first step")

    def reset(self) -> 'GeneratorWizard':
        return GeneratorWizard()
