"""Signal daemon connector.

The connector is a transport adapter that:
- Subscribes to the signal-cli daemon's event stream
- Decodes receive frames into envelopes
- Applies identity, access, and reaction policies
- Hands accepted messages to the reply pipeline
"""

__all__ = ["signal_monitor"]
