"""Legal chat core: retrieval-augmented answers to legal questions.

The orchestrator combines conversation state, knowledge retrieval, quota
enforcement, prompt augmentation and citation extraction. Collaborators are
injected through the protocols in ``legalchat.ports``.
"""
