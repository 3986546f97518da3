"""
Record produced for each captured conversation.
"""


class Item:
    """A bibliographic record with settable fields and a completion hook."""

    def __init__(self, item_type='instantMessage', sink=None):
        self.item_type = item_type
        self.title = None
        self.creators = []
        self.date = None
        self.url = None
        self.extra = None
        self.ai_model = None
        self.attachments = []
        self.completed = False
        self._sink = sink

    def complete(self):
        """Mark the record finished and hand it to the sink, if any."""
        self.completed = True
        if self._sink:
            self._sink(self)
        return self

    def to_dict(self) -> dict:
        record = {
            'type': self.item_type,
            'title': self.title,
            'creators': list(self.creators),
            'date': self.date,
            'url': self.url,
            'ai_model': self.ai_model,
            'attachments': list(self.attachments),
        }
        if self.extra:
            record['extra'] = self.extra
        return record
