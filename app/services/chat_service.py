# app/services/chat_service.py
from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from app.models.message import Message


class ChatService:
    def send(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        body: str,
    ) -> Message:
        row = Message(
            project_id=project_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def send_kickoff(
        self,
        db: Session,
        *,
        project_id: uuid.UUID,
        project_title: str,
        client_id: uuid.UUID,
        freelancer_id: uuid.UUID,
    ) -> Message:
        body = (
            f'Hello! I have accepted your bid on "{project_title}". '
            "Let's discuss the details."
        )
        return self.send(
            db,
            project_id=project_id,
            sender_id=client_id,
            receiver_id=freelancer_id,
            body=body,
        )
