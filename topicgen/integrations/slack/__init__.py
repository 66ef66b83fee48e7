# Slack integration module
from topicgen.integrations.slack.client import SlackCrawler
from topicgen.integrations.slack.models import ChannelCrawl, CrawlSummary

__all__ = ["SlackCrawler", "ChannelCrawl", "CrawlSummary"]
