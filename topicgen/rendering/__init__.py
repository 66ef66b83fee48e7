# Markdown projection of messages
