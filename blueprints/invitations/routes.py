"""
Invitation routes.

Admin parent only:
  POST /api/families/<id>/invitations                      – invite the second parent
  POST /api/families/<id>/invitations/<inv_id>/revoke      – revoke a pending invitation
  POST /api/families/<id>/invitations/<inv_id>/resend      – replace with a fresh token

Any parent of the family:
  GET  /api/families/<id>/invitations                      – list (tokens never included)

Public:
  GET  /api/invitations/<token>/preview                    – family, children, inviter

Any authenticated user:
  POST /api/invitations/accept                             – join as co-parent
"""
from flask import jsonify
from flask_login import current_user, login_required

from blueprints.invitations import invitations_bp
from blueprints.invitations.forms import AcceptInvitationForm, InvitationForm
from extensions import limiter
from services.invitation_service import InvitationService, invitation_url
from utils.forms import parse_json
from utils.permissions import Action, family_action


def _issued(invitation, status=201):
    return jsonify({
        'invitation': invitation.to_dict(),
        'invitation_url': invitation_url(invitation.token),
    }), status


@invitations_bp.route('/families/<int:family_id>/invitations', methods=['POST'])
@login_required
@limiter.limit('20 per day')
@family_action(Action.ISSUE_INVITATION)
def issue_invitation(family_id, ctx):
    data = parse_json(InvitationForm)
    invitation = InvitationService.issue(ctx, data['email'], message=data['message'])
    return _issued(invitation)


@invitations_bp.route('/families/<int:family_id>/invitations', methods=['GET'])
@login_required
@family_action(Action.LIST_INVITATIONS)
def list_invitations(family_id, ctx):
    invitations = InvitationService.list_for_family(family_id)
    return jsonify({'invitations': [i.to_dict() for i in invitations]})


@invitations_bp.route('/families/<int:family_id>/invitations/<int:invitation_id>/revoke',
                      methods=['POST'])
@login_required
@family_action(Action.REVOKE_INVITATION)
def revoke_invitation(family_id, invitation_id, ctx):
    invitation = InvitationService.revoke(ctx, invitation_id)
    return jsonify({'invitation': invitation.to_dict()})


@invitations_bp.route('/families/<int:family_id>/invitations/<int:invitation_id>/resend',
                      methods=['POST'])
@login_required
@limiter.limit('10 per day')
@family_action(Action.RESEND_INVITATION)
def resend_invitation(family_id, invitation_id, ctx):
    invitation = InvitationService.resend(ctx, invitation_id)
    return _issued(invitation)


@invitations_bp.route('/invitations/<token>/preview', methods=['GET'])
@limiter.limit('30 per minute')
def preview_invitation(token):
    return jsonify(InvitationService.preview(token))


@invitations_bp.route('/invitations/accept', methods=['POST'])
@login_required
@limiter.limit('10 per hour')
def accept_invitation():
    data = parse_json(AcceptInvitationForm)
    invitation, family, parent = InvitationService.accept(data['token'], current_user)
    return jsonify({
        'invitation': invitation.to_dict(),
        'family': family.to_dict(),
        'parent': parent.to_dict(),
    })
