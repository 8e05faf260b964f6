"""Project records: model, comment-preserving document, store and coordinator."""
