from .legal_document import DocumentType, DraftNarrative, LegalDocumentInput, LegalDocumentOutput

DOCUMENT_TITLES = {
    "FIR": "First Information Report (FIR)",
    "ComplaintLetter": "Complaint Letter",
    "TakedownNotice": "Takedown Notice",
}
