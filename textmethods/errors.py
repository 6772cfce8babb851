class TextMethodsError(Exception):
    """Base class for failures raised by the text-methods pipeline."""


class EncodingError(TextMethodsError):
    """Raw document text is not valid text (undecodable bytes, stray surrogates, non-string)."""

    def __init__(self, message: str, doc_id=None):
        super().__init__(message)
        self.doc_id = doc_id


class EmptyVocabularyError(TextMethodsError):
    """Pruning thresholds removed every term from the vocabulary."""


class EstimationError(TextMethodsError):
    """An external estimator (topic model, classifier) failed to fit or predict."""


class UnscoredDocumentWarning(UserWarning):
    """Documents had no lexicon matches; they are kept but carry no score."""


class DegenerateClassifierWarning(UserWarning):
    """All coefficients collapsed to zero at some regularization strength."""
