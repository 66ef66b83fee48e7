"""TopicGen: Slack channel history to topic-organized markdown documents."""
