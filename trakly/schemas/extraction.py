from typing import List, Optional
from trakly.schemas.common import CamelModel

class QuestionAnswerResponse(CamelModel):
    question: str
    answer: str

class ExtractionResponse(CamelModel):
    questions: List[QuestionAnswerResponse]
    message: Optional[str] = None
