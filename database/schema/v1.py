"""Schema v1 - Initial database schema.

This version includes tables for:
- Registered wallet identities
- Jobs and their lifecycle state
- Dispute and peer-to-peer chat messages
"""

schema = {
    'version': 1,
    'tables': [
        {
            'name': 'identities',
            'columns': [
                {'name': 'wallet', 'type': 'TEXT', 'primary_key': True},
                {'name': 'display_name', 'type': 'TEXT', 'nullable': False},
                {'name': 'role', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': ["role IN ('employer', 'worker')"]
        },
        {
            'name': 'jobs',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'payment_type', 'type': 'TEXT', 'nullable': False},
                {'name': 'title', 'type': 'TEXT', 'nullable': False},
                {'name': 'description', 'type': 'TEXT', 'nullable': False, 'default': "''"},
                {'name': 'tags', 'type': 'TEXT[]', 'nullable': False, 'default': "'{}'"},
                {'name': 'employer_address', 'type': 'TEXT', 'nullable': False},
                {'name': 'worker_address', 'type': 'TEXT'},
                {'name': 'status', 'type': 'TEXT', 'nullable': False, 'default': "'OPEN'"},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'},
                {'name': 'updated_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'checks': [
                "payment_type IN ('WEEKLY', 'ONE_OFF')",
                "status IN ('OPEN', 'IN_PROGRESS', 'FINISHED')"
            ],
            'indexes': [
                {'name': 'idx_jobs_employer', 'columns': ['employer_address']},
                {'name': 'idx_jobs_worker', 'columns': ['worker_address']},
                {'name': 'idx_jobs_status', 'columns': ['status']},
                {'name': 'idx_jobs_created', 'columns': ['created_at']}
            ]
        },
        {
            'name': 'messages',
            'columns': [
                {'name': 'id', 'type': 'UUID', 'primary_key': True, 'default': 'gen_random_uuid()'},
                {'name': 'conversation_id', 'type': 'TEXT', 'nullable': False},
                {'name': 'sender', 'type': 'TEXT', 'nullable': False},
                {'name': 'receiver', 'type': 'TEXT'},
                {'name': 'content', 'type': 'TEXT', 'nullable': False},
                {'name': 'created_at', 'type': 'TIMESTAMPTZ', 'nullable': False, 'default': 'now()'}
            ],
            'indexes': [
                {'name': 'idx_messages_conversation', 'columns': ['conversation_id', 'created_at']},
                {'name': 'idx_messages_created', 'columns': ['created_at']},
                {'name': 'idx_messages_sender', 'columns': ['sender']},
                {'name': 'idx_messages_receiver', 'columns': ['receiver']}
            ]
        }
    ]
}
