"""
bullionpos/schemas/compliance.py

Results of the 1099-B / Form 8300 checks.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ComplianceResult(BaseModel):
    """
    reportable: the candidate trips the rule
    reason: "Single transaction exceeds threshold" or the 24-hour
            "Combined with prior transaction(s) ..." wording
    contributing_ids: prior transactions that must be flagged retroactively
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reportable: bool = False
    reason: Optional[str] = None
    contributing_ids: List[str] = Field(default_factory=list)


class ComplianceCheckResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    form_1099b: ComplianceResult = Field(alias="form1099B")
    form_8300: ComplianceResult = Field(alias="form8300")
