from datetime import datetime
from adaptlearn import db


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    role = db.Column(db.String(20), default='student')  # student, tutor, admin
    learning_style = db.Column(db.String(20))  # visual, auditory, kinesthetic, reading
    primary_category = db.Column(db.String(50))
    preferred_personality = db.Column(db.String(10))  # ARIA, SAGE, COACH
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    recommendations = db.relationship('Recommendation', back_populates='user', lazy='dynamic')
    analytics = db.relationship('LearningAnalytics', back_populates='user', lazy='dynamic')
    adaptation_events = db.relationship('AdaptationEvent', back_populates='user', lazy='dynamic')

    def is_admin(self):
        return self.role == 'admin'

    def is_tutor(self):
        return self.role in ['tutor', 'admin']

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'learning_style': self.learning_style,
            'primary_category': self.primary_category,
            'preferred_personality': self.preferred_personality,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
