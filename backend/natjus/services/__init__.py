"""
NatJus Backend — Services Layer
=================================

Service Inventory:
    - TextGenerator (abstract): Interface for LLM providers
    - GeminiService / DefaultLLMService: Concrete LLM providers
    - LLMRouter: Resolves the configured LLM provider and its fallback
    - FileStore (abstract): Interface for storage providers
    - FileService / GoogleDriveService: Concrete storage providers
    - StorageRouter: Resolves the configured storage provider and its fallback
    - PdfTextExtractor: Text extraction from stored PDFs
    - PipelineOrchestrator: store → extract → structure → persist per file
    - NotaService / ConfiguracaoService / ChatService: domain operations
"""
