from datetime import datetime
from adaptlearn import db
import json


class AdaptationEvent(db.Model):
    """
    One application of an adaptation rule to a learner.

    Keeps the context snapshot the rule was evaluated against together with
    the actions that were switched on and the outcome.
    """
    __tablename__ = 'adaptation_events'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    rule_id = db.Column(db.Integer, db.ForeignKey('adaptation_rules.id'), nullable=False)
    rule_name = db.Column(db.String(100))

    # State the rule was evaluated against
    state = db.Column(db.Text)  # JSON snapshot

    # What was applied
    actions = db.Column(db.Text)  # JSON list of {type, actions}
    success = db.Column(db.Boolean, nullable=False, default=True)
    error = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = db.relationship('User', back_populates='adaptation_events')
    rule = db.relationship('AdaptationRule', back_populates='events')

    @property
    def state_dict(self):
        return json.loads(self.state) if self.state else {}

    @state_dict.setter
    def state_dict(self, value):
        self.state = json.dumps(value)

    @property
    def actions_list(self):
        return json.loads(self.actions) if self.actions else []

    @actions_list.setter
    def actions_list(self, value):
        self.actions = json.dumps(value)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'rule_id': self.rule_id,
            'rule_name': self.rule_name,
            'state': self.state_dict,
            'actions_applied': self.actions_list,
            'success': self.success,
            'error': self.error,
            'timestamp': self.created_at.isoformat() if self.created_at else None
        }
