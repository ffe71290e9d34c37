import os
from adaptlearn import create_app, db
from adaptlearn.models import (
    User, AdaptationRule, AdaptationEvent, Recommendation, AIPrompt, LearningAnalytics
)

app = create_app(os.getenv('FLASK_ENV', 'development'))

@app.shell_context_processor
def make_shell_context():
    return {
        'db': db,
        'User': User,
        'AdaptationRule': AdaptationRule,
        'AdaptationEvent': AdaptationEvent,
        'Recommendation': Recommendation,
        'AIPrompt': AIPrompt,
        'LearningAnalytics': LearningAnalytics
    }

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000)
