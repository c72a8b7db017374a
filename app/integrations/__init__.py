"""app.integrations — External service adapters.

Services never call third-party APIs or the filesystem store directly; they
go through a module in this package:

  git_host_gateway.GitHostGateway — GitHub / GitLab repository push
  object_storage.ObjectStorage    — audio uploads and export archives
"""
