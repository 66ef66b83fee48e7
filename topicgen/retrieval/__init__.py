# Message retrieval and thread grouping
