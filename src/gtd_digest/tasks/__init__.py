"""
Task subsystem.

Components:
- task_models.py: data structures (TaskRecord, ClassifiedDigest, DigestMessage)
- task_parser.py: raw markdown file -> TaskRecord
- classifier.py: date bucketing + backlog sampling
- composer.py: buckets -> DigestMessage, plus HTML/plain renderers
- digest.py: one fetch -> parse -> classify -> compose cycle
- periods.py: recurring calendar entries
- task_scheduler.py: daily timer + inbound message loop
"""
