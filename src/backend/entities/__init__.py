"""
Entities package.

Each subdirectory is one pipeline stage or collaborator:
- intent_classifier/: pattern fast path plus LLM intent classification
- keyword_extractor/: entities, temporal cues, filters and actions
- query_disambiguator/: builds the tenant-scoped SemanticQuery
- sql_generator/: prompts, LLM generation and sanitizing
- query_evaluator/: static checks on semantic queries and SQL text
- pipeline/: stage sequencing and the execute/regenerate loop
- assistant/: routes chat messages between data and conversation
- metadata_store/: the bundled school metadata
"""
