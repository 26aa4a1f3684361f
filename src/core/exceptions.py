class IngestionError(Exception):
    """Errore generico della pipeline di ingestione (il caricamento NON è andato a buon fine)."""


class SheetParseError(IngestionError):
    """Sollevata quando i byte ricevuti non sono un foglio di calcolo leggibile."""


class BackgroundExecutionError(IngestionError):
    """Sollevata quando il contesto in background fallisce e il fallback non è possibile."""


class BufferConsumedError(BackgroundExecutionError):
    """Sollevata quando il buffer di input è già stato ceduto al worker e non può essere riletto."""


class IngestionTimeoutError(IngestionError):
    """Sollevata quando il worker in background non risponde entro il timeout configurato."""


class IngestionInProgressError(IngestionError):
    """Sollevata quando un altro caricamento è già in corso sullo stesso servizio."""


class MappingConsistencyError(IngestionError):
    """Sollevata quando il percorso background e quello locale producono record diversi."""


class StorageError(Exception):
    """Errore di lettura/scrittura sullo store chunked (transazione annullata)."""


class StorageIntegrityError(StorageError):
    """Sollevata quando i dati persistiti non corrispondono ai metadati (chunk mancanti, versione diversa)."""


class UnknownDatasetTypeError(ValueError):
    """Sollevata per un tipo dataset diverso da 'closing' / 'opening'."""


__all__ = [
    "IngestionError",
    "SheetParseError",
    "BackgroundExecutionError",
    "BufferConsumedError",
    "IngestionTimeoutError",
    "IngestionInProgressError",
    "MappingConsistencyError",
    "StorageError",
    "StorageIntegrityError",
    "UnknownDatasetTypeError",
]
