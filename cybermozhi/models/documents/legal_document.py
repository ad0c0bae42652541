from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DocumentType = Literal["FIR", "ComplaintLetter", "TakedownNotice"]


class LegalDocumentInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_type: DocumentType = Field(..., alias="documentType")
    incident_details: str = Field(..., alias="incidentDetails", min_length=1)
    user_name: Optional[str] = Field(None, alias="userName")
    user_contact: Optional[str] = Field(None, alias="userContact")
    accused_details: Optional[str] = Field(None, alias="accusedDetails")


class LegalDocumentOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    generated_document: str = Field(..., alias="generatedDocument")


# What the model is allowed to contribute: narrative derived from the incident
# description only. Names, addresses and dates come from the request or stay placeholders.
class DraftNarrative(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    offence_summary: str = Field(..., alias="offenceSummary")
    incident_account: str = Field(..., alias="incidentAccount", min_length=1)
    evidence: List[str] = Field(default_factory=list)
    applicable_laws: List[str] = Field(default_factory=list, alias="applicableLaws")
