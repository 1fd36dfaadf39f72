"""
Messenger package.

Interactive chat over a store pub/sub channel. Lines typed on stdin are
published; messages from other users arrive through a concurrently
running subscriber loop and are printed. Modules:

- app.main: CLI runner wiring publisher, subscriber and shutdown
- app.pubsub: subscriber loop, publisher and message tagging
- app.shutdown: one-shot cancellation signal
- app.input: stdin line reader
"""
